"""Ya-Frida-Tool: attach a Frida agent to processes across devices."""

__version__ = "0.1.0"
