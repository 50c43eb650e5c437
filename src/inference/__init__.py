"""
Inference backends: a simulated stand-in and an HTTP model-server adapter.
"""
