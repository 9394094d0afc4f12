"""Noise sampling."""

from stompopt.sampling.noise import NoiseModel

__all__ = ["NoiseModel"]
