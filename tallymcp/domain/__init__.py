"""Domain Layer: value objects, port interfaces and the error taxonomy.

Nothing in this package performs I/O; infrastructure adapters implement the
interfaces defined here.
"""
