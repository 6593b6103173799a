"""
Voice Clone API - Main Entry Point

    python main.py --port 3000
"""

from voice_clone.cli import main


if __name__ == "__main__":
    main()
