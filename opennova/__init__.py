"""OpenNova - autonomous Minecraft agent core"""

__version__ = "0.1.0"
