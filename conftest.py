import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("API_URL", "http://candidates.test/")
os.environ.setdefault("API_KEY", "test-key")
os.environ.setdefault("API_RETRY_INITIAL_DELAY", "0")
os.environ.setdefault("SUGGESTIONS_CACHE_BACKEND", "memory")
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:6379")
