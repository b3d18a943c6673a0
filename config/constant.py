#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Constants for npi-sync configuration.
"""

from __future__ import annotations

# ===========================================================================
# STORE IDENTIFIERS
# ===========================================================================
DATABASE_ID = "NPIDB"
DATABASE_NAME = "NPIDB"
COLLECTION_ID = "NPIDATA"
COLLECTION_NAME = "NPIDATA"
FLAG_COLLECTION_ID = "IsInitialized"
FLAG_COLLECTION_NAME = "IsInitialized"
FLAG_ATTRIBUTE = "IsInitialized"

# Natural key of the NPPES dissemination file
NATURAL_KEY_FIELD = "NPI"

# ===========================================================================
# IMPORT / BATCHING CONFIGURATION
# ===========================================================================
CREATE_BATCH_SIZE = 500
CHUNK_SIZE = 50
CHUNK_DELAY_SECONDS = 0.2
MAX_PARALLEL_BATCHES = 10
CACHE_PAGE_SIZE = 500
PROGRESS_LOG_INTERVAL = 10000

# ===========================================================================
# BULK DELETE / RATE LIMITS
# ===========================================================================
DELETE_PAGE_SIZE = 1000
# Store allows 60 deletions per minute
DELETE_BATCH_SIZE = 60
RATE_LIMIT_DELAY_SECONDS = 61.0

# ===========================================================================
# SCHEMA PROVISIONING
# ===========================================================================
ATTRIBUTE_MAX_RETRIES = 3
ATTRIBUTE_RETRY_DELAY_SECONDS = 2.0
ATTRIBUTE_CREATE_DELAY_SECONDS = 0.1
PROVISION_MAX_ATTEMPTS = 5

# ===========================================================================
# SOURCE FILE LAYOUT
# ===========================================================================
DEFAULT_DOWNLOADS_DIR = "./downloads"
SOURCE_DIR_TEMPLATE = "NPPES_Data_Dissemination_{month}_{year}"
SOURCE_FILE_GLOB = "npidata_pfile_*.csv"
SOURCE_FILE_ENCODING = "utf-8-sig"

__all__ = [
    "DATABASE_ID",
    "DATABASE_NAME",
    "COLLECTION_ID",
    "COLLECTION_NAME",
    "FLAG_COLLECTION_ID",
    "FLAG_COLLECTION_NAME",
    "FLAG_ATTRIBUTE",
    "NATURAL_KEY_FIELD",
    "CREATE_BATCH_SIZE",
    "CHUNK_SIZE",
    "CHUNK_DELAY_SECONDS",
    "MAX_PARALLEL_BATCHES",
    "CACHE_PAGE_SIZE",
    "PROGRESS_LOG_INTERVAL",
    "DELETE_PAGE_SIZE",
    "DELETE_BATCH_SIZE",
    "RATE_LIMIT_DELAY_SECONDS",
    "ATTRIBUTE_MAX_RETRIES",
    "ATTRIBUTE_RETRY_DELAY_SECONDS",
    "ATTRIBUTE_CREATE_DELAY_SECONDS",
    "PROVISION_MAX_ATTEMPTS",
    "DEFAULT_DOWNLOADS_DIR",
    "SOURCE_DIR_TEMPLATE",
    "SOURCE_FILE_GLOB",
    "SOURCE_FILE_ENCODING",
]
