"""Configuration for review comment syncing."""

import os

from dotenv import load_dotenv

load_dotenv()

# Auth: personal access token
GITHUB_TOKEN = os.environ.get("GITHUB_TOKEN")
GITHUB_API_URL = os.environ.get("GITHUB_API_URL", "https://api.github.com")

# Paging
PER_PAGE = int(os.environ.get("PER_PAGE", "100"))  # Max items per API page
PULL_REQUEST_PAGE_SIZE = int(os.environ.get("PULL_REQUEST_PAGE_SIZE", "20"))  # PRs per list batch

# Sync loop
SYNC_INTERVAL_SECONDS = float(os.environ.get("SYNC_INTERVAL_SECONDS", "10"))

# Log file (defaults to the cache dir, see repo.get_cache_dir)
LOG_FILE = os.environ.get("REVIEWSYNC_LOG_FILE")
