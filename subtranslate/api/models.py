"""Pydantic models for API responses"""

from typing import List
from pydantic import BaseModel, Field


class Manifest(BaseModel):
    """Add-on manifest served at /manifest.json"""
    id: str
    version: str
    name: str
    description: str
    resources: List[str] = Field(default_factory=lambda: ["subtitles"])
    types: List[str] = Field(default_factory=lambda: ["movie", "series"])
    idPrefixes: List[str] = Field(default_factory=lambda: ["tt"])
    catalogs: List[dict] = Field(default_factory=list)


class SubtitleItem(BaseModel):
    """One subtitle offered to the player"""
    id: str
    lang: str = Field(..., description="ISO 639-2 language code")
    url: str = Field(..., description="Absolute URL of the subtitle file")


class SubtitlesResponse(BaseModel):
    """Response model for subtitle queries; empty when nothing is available"""
    subtitles: List[SubtitleItem] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response model for health check"""
    status: str = "healthy"
    version: str
    uptime: float
    credentials_configured: bool
    cache_writable: bool
    cache_dir: str
