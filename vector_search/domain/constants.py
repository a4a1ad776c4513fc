# Chunking
CHUNK_SIZE = 500  # Characters per chunk (0 = whole document)
CHUNK_OVERLAP = 100  # Overlap between chunks (character strategy only)
CHUNKING_STRATEGY = "paragraph"

# Search
SIMILARITY_THRESHOLD = 0.8  # Min cosine similarity to include in results
MAX_RESULTS_DEFAULT = 10
MAX_RESULTS_LIMIT = 50
MIN_QUERY_LENGTH = 3

# Debounce
SEARCH_DEBOUNCE_MS = 300  # Search-as-you-type delay for clients
FILE_DEBOUNCE_MS = 2000  # Wait time before re-indexing a changed file
WATCH_EXTENSIONS = [".md"]  # File types to monitor

# Embedding service
SERVICE_URL = "http://localhost:11434"
MODEL_NAME = "nomic-embed-text:latest"
REQUEST_TIMEOUT_SECONDS = 30.0

# Persistence
DATA_DIR = "./data"
INDEX_FILENAME = "vectors.json"
META_SUFFIX = ".meta.json"
