"""
Services Package

External boundaries: the model endpoint, media capture, the local store
and the device session.
"""
