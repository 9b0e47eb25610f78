from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel


class OrientationDTO(BaseModel):
    pair: str
    sites: List[str]


class ConflictDTO(BaseModel):
    resources: List[str]
    orientations: List[OrientationDTO]


class ReentrantDTO(BaseModel):
    resource_type: str
    sites: List[str]


class LockSiteDTO(BaseModel):
    resource_type: str
    scope: str
    position: str


class LockOrderReportDTO(BaseModel):
    conflicts: List[ConflictDTO] = []
    reentrant: List[ReentrantDTO] = []
    stats: Dict[str, int] = {}
