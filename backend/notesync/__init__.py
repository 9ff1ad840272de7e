"""notesync – note-taking backend with multi-device synchronisation."""

__version__ = "0.1.0"
