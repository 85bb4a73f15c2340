"""AI subtitle translation add-on"""

__version__ = "1.1.0"
__description__ = (
    "Fetches English subtitles from OpenSubtitles, translates them with an LLM "
    "and serves them to Stremio-compatible players"
)
