"""dialogue-eval - evaluate conversational agents against recorded transcripts."""

__version__ = "0.1.0"
