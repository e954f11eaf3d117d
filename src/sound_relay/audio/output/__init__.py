from .playback import ReferencePlayer, load_wav

__all__ = ["ReferencePlayer", "load_wav"]
