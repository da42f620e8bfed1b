"""Transcript triage tool - Entry point."""

from dotenv import load_dotenv

from triage_analysis.cli import app

# OPENAI_API_KEY / GEMINI_API_KEY may live in a .env file
load_dotenv()

if __name__ == "__main__":
    app()
