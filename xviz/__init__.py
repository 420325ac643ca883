"""
XVIZ protocol toolkit: binary container codec, message parsing and streaming.
"""
