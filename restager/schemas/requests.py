from pydantic import BaseModel
from typing import List, Optional, Dict


class StageRequest(BaseModel):
    """创建重新布置任务的请求模型"""
    image: Optional[str] = None
    transformation_type: str = "furnish"
    space_type: str = "interior"
    room_type: str = "living_room"
    design_style: str = "modern"
    update_flooring: bool = False
    block_decorative: bool = True


class StageResponse(BaseModel):
    """创建任务的响应模型"""
    success: bool
    status: Optional[str] = None
    taskId: Optional[str] = None
    message: Optional[str] = None
    provider: Optional[str] = None
    estimatedTime: Optional[str] = None
    error: Optional[str] = None


class StatusResponse(BaseModel):
    """任务状态查询的响应模型"""
    success: bool
    status: Optional[str] = None
    images: Optional[List[str]] = None
    message: Optional[str] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    providers: Dict[str, bool]
