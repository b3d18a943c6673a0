#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Client initialisation for the Appwrite document store.
"""

import os
from typing import Optional

from appwrite.client import Client
from appwrite.services.databases import Databases

from npi_exceptions import ConfigError


class ClientManager:
    """Manages the lazy-loaded Appwrite client and Databases service."""

    _client: Optional[Client] = None
    _databases: Optional[Databases] = None

    @classmethod
    def get_client(
        cls,
        endpoint: Optional[str] = None,
        project_id: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> Client:
        """
        Lazy-load the Appwrite client.
        Explicit arguments win over APPWRITE_* environment variables.
        """
        if cls._client is not None:
            return cls._client

        endpoint = endpoint or os.environ.get("APPWRITE_ENDPOINT")
        project_id = project_id or os.environ.get("APPWRITE_PROJECT_ID")
        api_key = api_key or os.environ.get("APPWRITE_API_KEY")
        if not endpoint:
            raise ConfigError("APPWRITE_ENDPOINT is not set")
        if not project_id:
            raise ConfigError("APPWRITE_PROJECT_ID is not set")
        if not api_key:
            raise ConfigError(
                "APPWRITE_API_KEY is not set. "
                "Set it in the environment or use a dry run."
            )

        client = Client()
        client.set_endpoint(endpoint)
        client.set_project(project_id)
        client.set_key(api_key)
        cls._client = client
        return cls._client

    @classmethod
    def get_databases(
        cls,
        endpoint: Optional[str] = None,
        project_id: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> Databases:
        if cls._databases is not None:
            return cls._databases
        cls._databases = Databases(
            cls.get_client(endpoint, project_id, api_key))
        return cls._databases

    @classmethod
    def reset(cls) -> None:
        cls._client = None
        cls._databases = None


def get_databases(
    endpoint: Optional[str] = None,
    project_id: Optional[str] = None,
    api_key: Optional[str] = None,
) -> Databases:
    """Lazy-load the Appwrite Databases service."""
    return ClientManager.get_databases(endpoint, project_id, api_key)
