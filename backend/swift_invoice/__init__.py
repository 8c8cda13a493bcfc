"""Swift Invoice: invoice authoring API, PDF rendering and client-side draft state."""

__version__ = "1.0.0"
