"""Prompt templates and catalogue data for listing description generation."""

from __future__ import annotations

from string import Template

MARKETPLACE_NAME = "Limin Market"

# --- System prompt ---

DESCRIPTION_SYSTEM_PROMPT = (
    "You are a helpful assistant that writes compelling product descriptions "
    f"for a Guyanese marketplace called {MARKETPLACE_NAME}.\n"
    "\n"
    "Your descriptions should:\n"
    "- Be 2-4 sentences long\n"
    "- Highlight key features and condition\n"
    "- Use natural, conversational language\n"
    "- Include Guyanese context when relevant (e.g., \"perfect for staying connected "
    "with family back home\", \"hard to find in Guyana\")\n"
    "- Be honest and accurate\n"
    "- Mention condition, what's included, and any notable features\n"
    "- Use local terminology where appropriate"
)

# --- User prompt pieces ---

USER_PROMPT_HEADER = "Write a compelling marketplace description for this item:"

TITLE_LINE = Template("Title: $title")
CATEGORY_LINE = Template("Category: $category")
LOCATION_LINE = Template("Location: $location")
PRICE_LINE = Template("Price: $price")

IMAGE_INSTRUCTION = (
    "Please analyze the image to identify condition, features, and any visible details."
)
TEXT_ONLY_INSTRUCTION = "Generate a description based on the title and category."

# --- Category grid ---

CATEGORIES: list[dict[str, str]] = [
    {"name": "Electronics", "emoji": "📱"},
    {"name": "Fashion", "emoji": "👕"},
    {"name": "Home", "emoji": "🏠"},
    {"name": "Sports", "emoji": "⚽"},
    {"name": "Vehicles", "emoji": "🚗"},
    {"name": "Books", "emoji": "📚"},
]
