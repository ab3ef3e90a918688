# src/batchmint/services/__init__.py
"""Engine services for batch commit-reveal minting.

Import from the submodules directly; the repositories depend on
``services.allocator`` and eager imports here would be circular.
"""
