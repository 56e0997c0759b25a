"""Core package for the audio-fx ffmpeg wrapper.

This package provides typed, testable modules that the ``audio_fx.py`` CLI
imports: option resolution, filter-chain building and ffmpeg/ffprobe
process orchestration.
"""

__version__ = "0.1.0"
