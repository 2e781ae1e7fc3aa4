"""Task factories live here.

Each module registers one or more factories with `@task_kind("<kind>")`; the
config refers to them by that kind. Shared transform code belongs in
`assetflow.transforms`, not here.
"""
