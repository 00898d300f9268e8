# src/engine/ai_content.py
"""
AI-assisted content: prompt builders over the chat-completion adapter and
parsers that pull keywords/recommendations out of free-form replies.
"""
import json
import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from engine.errors import LimitExceeded, ValidationError
from engine.usage import check_feature_access, record_usage

PRIORITIES = ("low", "medium", "high")
_NUMBERING = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")


def normalize_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise ValidationError("URL is required")
    return url if url.startswith("http") else f"https://{url}"


def extract_json_array(text: str) -> Optional[list]:
    match = re.search(r"\[.*\]", text or "", re.DOTALL)
    if not match:
        return None
    try:
        value = json.loads(match.group(0))
    except ValueError:
        return None
    return value if isinstance(value, list) else None


def fallback_keywords(url: str, industry: str = None) -> List[str]:
    domain = urlparse(url).netloc or url
    domain = domain[4:] if domain.startswith("www.") else domain
    industry = industry or "business"
    return [
        domain,
        f"{domain} services",
        f"{domain} benefits",
        f"{domain} pricing",
        industry,
        f"{industry} solutions",
        f"best {industry} provider",
        f"{industry} tips",
        f"affordable {industry} services",
        f"{industry} near me",
    ]


def parse_keywords(content: str, url: str, industry: str = None) -> List[str]:
    keywords = []
    parsed = extract_json_array(content)
    if parsed:
        keywords = [str(k).strip() for k in parsed if str(k).strip()]
    if not keywords and content:
        for part in re.split(r"[\n,]", content):
            item = _NUMBERING.sub("", part).strip().strip('"').strip()
            if len(item) > 2 and "keyword" not in item.lower():
                keywords.append(item)
    return keywords or fallback_keywords(url, industry)


def parse_lines(content: str) -> List[str]:
    parsed = extract_json_array(content)
    if parsed:
        return [item if isinstance(item, str) else json.dumps(item) for item in parsed]
    return [_NUMBERING.sub("", line).strip() for line in (content or "").splitlines()
            if _NUMBERING.sub("", line).strip()]


def normalize_todo(item) -> dict:
    if not isinstance(item, dict):
        return {"title": str(item), "description": "", "priority": "medium"}
    priority = str(item.get("priority") or "medium").lower()
    return {
        "title": item.get("title") or item.get("task") or "Untitled task",
        "description": item.get("description") or "",
        "priority": priority if priority in PRIORITIES else "medium",
    }


class AIContentService:
    def __init__(self, db, client):
        self.db = db
        self.client = client

    def _complete(self, user_id: str, feature: str, prompt: str, system: str = None, max_tokens: int = 800) -> str:
        access = check_feature_access(self.db, user_id, feature)
        if not access.allowed:
            raise LimitExceeded(access.message)
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        result = self.client.chat(messages, max_tokens=max_tokens)
        record_usage(self.db, user_id, feature, tokens_used=result.get("total_tokens", 0))
        logging.info(f"[user_id={user_id}] {feature} completion tokens={result.get('total_tokens', 0)}")
        return result.get("content") or ""

    def keyword_suggestions(self, user_id: str, url: str, industry: str = None, project_name: str = None) -> dict:
        url = normalize_url(url)
        prompt = f"URL: {url}"
        if industry:
            prompt += f" Industry: {industry}"
        if project_name:
            prompt += f" Project: {project_name}"
        prompt += ". Generate 10 SEO keywords as a JSON array of strings."
        content = self._complete(user_id, "ai_keywords", prompt, max_tokens=300)
        keywords = parse_keywords(content, url, industry)
        return {"keywords": keywords, "count": len(keywords)}

    def generate_content(self, user_id: str, topic: str, content_type: str = "blog post",
                         keywords: List[str] = None, tone: str = None) -> dict:
        if not topic:
            raise ValidationError("topic is required")
        prompt = f"Write a {content_type or 'blog post'} about: {topic}."
        if keywords:
            prompt += f" Naturally include these keywords: {', '.join(keywords)}."
        if tone:
            prompt += f" Use a {tone} tone."
        content = self._complete(user_id, "ai_content", prompt,
                                 system="You are an SEO copywriter. Reply with the content only.",
                                 max_tokens=1500)
        return {"content": content}

    def _audit_prompt(self, audit, instruction: str) -> str:
        report = json.dumps(audit.report or {})[:6000]
        return (f"SEO audit for {audit.url} (score: {audit.score if audit.score is not None else 'n/a'}).\n"
                f"Report: {report}\n{instruction}")

    def recommendations(self, user_id: str, audit) -> dict:
        prompt = self._audit_prompt(audit, "List the 5 most important SEO recommendations as a JSON array of strings.")
        content = self._complete(user_id, "ai_recommendations", prompt,
                                 system="You are an SEO consultant.", max_tokens=800)
        return {"recommendations": parse_lines(content)}

    def todo_recommendations(self, user_id: str, audit) -> dict:
        prompt = self._audit_prompt(
            audit,
            'Return a JSON array of tasks, each {"title", "description", "priority": "low|medium|high"}.',
        )
        content = self._complete(user_id, "ai_recommendations", prompt,
                                 system="You are an SEO project manager.", max_tokens=1000)
        items = extract_json_array(content)
        if items is None:
            items = parse_lines(content)
        return {"todos": [normalize_todo(item) for item in items]}
