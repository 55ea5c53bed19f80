"""jar-flattener.

A build utility that turns a Java project or prebuilt uberjar into a single,
self-extracting executable carrying its own minimized Java runtime.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
