"""
The MODEL layer contains pure data structures and reconciliation logic.
It has NO knowledge of the rendering surface or of the Qt event loop.
It deals with Themes, Layers, Filters, Time extents and Session I/O.
"""
