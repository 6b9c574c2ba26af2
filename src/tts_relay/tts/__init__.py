"""
Provider and Pipeline Components.

    - credentials.py: Signed handshake and cached provider token
    - provider.py: Edge synthesis HTTP client
    - ssml.py: SSML document builder
    - chunker.py: Text splitting into provider-sized chunks
    - batcher.py: Windowed, ordered batch synthesis
    - sink.py: Audio sinks for streamed output
"""
