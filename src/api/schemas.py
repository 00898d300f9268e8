# src/api/schemas.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Literal

JobStatus = Literal['pending', 'processing', 'completed', 'failed']


class ClientInfo(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None


class CustomColors(BaseModel):
    primary: Optional[str] = None
    secondary: Optional[str] = None
    accent: Optional[str] = None


class PdfGenerationParameters(BaseModel):
    template: Optional[str] = None
    useAiContent: Optional[bool] = None
    clientInfo: Optional[ClientInfo] = None
    whiteLabelProfileId: Optional[str] = None
    customColors: Optional[CustomColors] = None
    customLogo: Optional[str] = None
    customNotes: Optional[str] = None
    sections: Optional[List[str]] = None


class PdfJobCreateRequest(BaseModel):
    auditId: str = Field(..., description="Audit the report is generated from")
    parameters: PdfGenerationParameters = Field(default_factory=PdfGenerationParameters)


class PdfJobStatusUpdate(BaseModel):
    status: JobStatus
    progress: Optional[int] = Field(None, ge=0, le=100)
    errorMessage: Optional[str] = None


class PdfGenerationContent(BaseModel):
    executiveSummary: Optional[str] = None
    recommendations: Optional[List[str]] = None
    technicalExplanations: Optional[Dict[str, str]] = None
    generatedAt: Optional[str] = None


class PdfTheme(BaseModel):
    clientName: Optional[str] = None
    preparedBy: Optional[str] = None
    customNotes: Optional[str] = None
    logoUrl: Optional[str] = None
    primaryColor: Optional[str] = None
    coverStyle: Optional[int] = None


class PdfGenerateRequest(BaseModel):
    theme: PdfTheme
    templateId: str
    projectId: str


class AuditCreateRequest(BaseModel):
    options: Dict[str, Any] = Field(default_factory=dict, description="Crawler options (depth, checks)")


class AuditCallback(BaseModel):
    audit_id: str
    project_id: str
    status: JobStatus
    score: Optional[int] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class CompetitorCreateRequest(BaseModel):
    url: str
    name: Optional[str] = None


class KeywordSuggestionRequest(BaseModel):
    url: str
    industry: Optional[str] = None
    projectName: Optional[str] = None


class ContentRequest(BaseModel):
    topic: str
    contentType: Optional[str] = "blog post"
    keywords: Optional[List[str]] = None
    tone: Optional[str] = None


class AuditAIRequest(BaseModel):
    auditId: str


class ErrorResult(BaseModel):
    success: bool = False
    error: str
    code: Optional[str] = None
    trace_id: Optional[str] = None


CrawlFrequency = Literal['daily', 'weekly', 'monthly']


class ProjectCreateRequest(BaseModel):
    name: str
    url: str
    crawl_frequency: CrawlFrequency = 'monthly'
    crawl_depth: int = Field(3, ge=1, le=10)
    keywords: List[str] = Field(default_factory=list)


class ProjectUpdateRequest(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    crawl_frequency: Optional[CrawlFrequency] = None
    crawl_depth: Optional[int] = Field(None, ge=1, le=10)
    status: Optional[Literal['active', 'paused', 'archived']] = None
    keywords: Optional[List[str]] = None


class AuditBulkActionRequest(BaseModel):
    auditIds: List[str]
    action: str


TodoPriority = Literal['low', 'medium', 'high']
TodoStatus = Literal['pending', 'in_progress', 'completed']


class TodoCreateRequest(BaseModel):
    projectId: str
    title: str
    description: Optional[str] = None
    priority: TodoPriority = 'medium'
    status: TodoStatus = 'pending'
    auditId: Optional[str] = None


class TodoUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TodoPriority] = None
    status: Optional[TodoStatus] = None


class TodoGenerateRequest(BaseModel):
    auditId: str
    projectId: str
