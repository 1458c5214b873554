"""Session lifecycle: the persisted record (store) and the in-memory
holder (context).

Import from the submodules directly; the context depends on the
credential service, which itself depends on the store.
"""
