"""
Liveness Challenge Engine

Randomized facial-gesture challenges that verify a live person is in front
of the camera.
"""
__version__ = "1.0.0"
