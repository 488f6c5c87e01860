"""Pydantic schemas for the per-event collections (polls, comments, links, to-do)."""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, Field


class PollCreate(BaseModel):
    user_id: str
    title: str = Field(min_length=1)
    description: str = ""
    options: list[str] = Field(min_length=1)
    priority: str = "level-1"


class PollOut(BaseModel):
    title: str
    description: str = ""
    created_by: str
    created_at: str
    priority: str
    options: dict[str, list[str]]


class VoteRequest(BaseModel):
    user_id: str
    option: str


class VoteOut(BaseModel):
    voted: bool
    poll: PollOut


class PollDelete(BaseModel):
    user_id: str


class CommentCreate(BaseModel):
    user_id: str
    message: str = Field(min_length=1)
    reply_to: Optional[str] = None


class CommentOut(BaseModel):
    uuid: str
    user_id: str
    message: str
    reply_to: Optional[str] = None
    created_at: str


class CommentDelete(BaseModel):
    comment_ids: list[str] = Field(min_length=1)


class LinkCreate(BaseModel):
    user_id: str
    link: str = Field(min_length=1)


class LinkOut(BaseModel):
    link: str
    added_by: str
    created_at: str


class TaskCreate(BaseModel):
    user_id: str
    task: str = Field(min_length=1)


class TaskOut(BaseModel):
    task_id: str
    creator_id: str
    task: str
    created_at: str


class TodoOut(BaseModel):
    to_do: list[TaskOut] = []
    done: list[TaskOut] = []


class RemovedOut(BaseModel):
    removed: int
