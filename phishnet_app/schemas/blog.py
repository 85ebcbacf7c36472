from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from phishnet_app.schemas.common import CamelModel


class BlogPost(CamelModel):
    id: str
    title: str
    link: Optional[str] = None
    author: str
    pub_date: datetime
    pub_date_formatted: str
    summary: str
    image: Optional[str] = None
    categories: List[str]
    source: str
    source_url: str
    read_time: str
    tags: List[str]


class BlogListResponse(BaseModel):
    success: bool = True
    data: List[BlogPost]
    count: int
    category: Optional[str] = None
    query: Optional[str] = None


class CategoryCountsResponse(BaseModel):
    success: bool = True
    data: Dict[str, int]
