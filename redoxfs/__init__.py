"""Block structures, buddy allocator, header, directory blocks and disk backends for the Redox filesystem format."""

__version__ = "0.8.6"