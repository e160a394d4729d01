"""
Shared utility helpers for the Mekor Halacha backend.

Modules:
- categories: source category labels and tolerant parsing
- text: quote verification, tag/emphasis stripping, match normalization
- serialization: prompt-friendly source dicts
"""
