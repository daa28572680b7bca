# app/schemas.py
from datetime import datetime
from pydantic import BaseModel, Field, model_validator

class BlogArticle(BaseModel):
    title: str
    content: str
    word_count: int = 0

class EmailNewsletter(BaseModel):
    subject: str
    content: str
    word_count: int = 0

class ContentOutputs(BaseModel):
    """The ten derivative artifacts produced for every generation."""

    twitter_posts: list[str] = Field(min_length=5, max_length=5)
    linkedin_posts: list[str] = Field(min_length=3, max_length=3)
    instagram_captions: list[str] = Field(min_length=2, max_length=2)
    blog_article: BlogArticle
    email_newsletter: EmailNewsletter
    quote_graphics: list[str] = Field(min_length=5, max_length=5)
    twitter_thread: list[str] = Field(min_length=1)
    podcast_show_notes: list[str] = Field(min_length=1)
    video_script_summary: str
    tiktok_hooks: list[str] = Field(min_length=5, max_length=5)

    @model_validator(mode="after")
    def _recount_words(self):
        # the model's own word counts are not trusted
        self.blog_article.word_count = len(self.blog_article.content.split())
        self.email_newsletter.word_count = len(self.email_newsletter.content.split())
        return self

class CurrentUser(BaseModel):
    id: str
    email: str | None = None

class GenerateResponse(BaseModel):
    generation_id: str
    status: str
    poll_url: str

class GenerationStatusResponse(BaseModel):
    id: str
    status: str
    progress: int
    outputs: dict | None = None
    error: str | None = None
    processing_time_ms: int | None = None

class GenerationSummary(BaseModel):
    id: str
    input_type: str
    input_url: str | None = None
    status: str
    error: str | None = None
    retry_count: int
    created_at: datetime
    completed_at: datetime | None = None
    processing_time_ms: int | None = None

class CreditsResponse(BaseModel):
    credits_remaining: int
    credits_total: int
    resets_at: datetime | None = None

class TickResponse(BaseModel):
    message: str
    job_id: str | None = None
    status: str | None = None
    processing_time_ms: int | None = None
    error: str | None = None
    will_retry: bool | None = None
