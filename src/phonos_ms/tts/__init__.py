"""
Rendering and Storage Pipeline.

    - engine.py: Backend-independent Engine (naming, persistence, expiry,
      error cache, language checks)
    - backend.py: BaseBackend, AudioRequest and the backend factory
    - backends/: espeak, Google Cloud TTS and Larynx
    - keys.py: Content-addressed file tokens and paths
    - storage.py: Blob store adapters (filesystem, in-memory)
    - cache.py: In-memory LRU cache with TTL
    - sandbox.py: Wrapped, time-limited external commands
    - encoder.py: WAV to MP3 with lame
    - jobs.py: Deduplicating background generation jobs
"""
