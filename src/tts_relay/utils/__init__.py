"""
Utility Modules for tts-relay.

    - text.py: Text cleaning before synthesis
    - timeit.py: Performance measurement utilities
"""
