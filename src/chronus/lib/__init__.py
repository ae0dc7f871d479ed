"""
Lib: helpers built on top of the kernel.

- chronos: timezone and calendar arithmetic
- blender: filtered, read-only views over the anchor store
- runner: anchors generated from step templates
"""
