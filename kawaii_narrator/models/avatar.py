"""
Avatar Model - Expression channel state of the VRM character.

Holds the per-channel weights that the render loop reads every frame, and
discovers which expression presets a VRM model actually provides.
"""

import logging
from pathlib import Path
from typing import Optional, Dict, Any, List, Iterable

from pygltflib import GLTF2

from ..core.config import AvatarConfig

logger = logging.getLogger(__name__)

# VRM 0.x blend shape presets -> channel names (VRM 1.0 preset names)
VRM0_PRESET_MAPPING = {
    'joy': 'happy',
    'angry': 'angry',
    'sorrow': 'sad',
    'fun': 'relaxed',
    'surprised': 'surprised',
    'neutral': 'neutral',
    'a': 'aa',
    'i': 'ih',
    'u': 'ou',
    'e': 'ee',
    'o': 'oh',
    'blink': 'blink',
    'blink_l': 'blinkLeft',
    'blink_r': 'blinkRight',
}

MOUTH_CHANNELS = ('aa', 'ih', 'ou', 'ee', 'oh')
NON_EMOTION_CHANNELS = MOUTH_CHANNELS + ('blink', 'blinkLeft', 'blinkRight',
                                         'lookUp', 'lookDown', 'lookLeft', 'lookRight')


class Avatar:
    """Expression sink backed by an in-memory blend shape table."""

    def __init__(self, config: Optional[AvatarConfig] = None, lip_sync_channel: str = "aa"):
        self.config = config or AvatarConfig()
        self.lip_sync_channel = lip_sync_channel

        self.vrm_data: Optional[GLTF2] = None
        self.model_path: Optional[Path] = None
        self.vrm_extensions: Dict[str, Any] = {}

        self.blend_shapes: Dict[str, float] = {}
        self.available_expressions: List[str] = []
        self._setup_channels(list(self.config.channels) + [lip_sync_channel])

    def _setup_channels(self, channels: Iterable[str]):
        self.blend_shapes = {}
        self.available_expressions = []
        for channel in channels:
            if channel and channel not in self.blend_shapes:
                self.blend_shapes[channel] = 0.0
                self.available_expressions.append(channel)
        logger.info(f"Setup {len(self.available_expressions)} expression channels")

    @property
    def expression_channels(self) -> List[str]:
        """Channels an emotion can drive (mouth shapes and blinks excluded)."""
        return [name for name in self.available_expressions
                if name not in NON_EMOTION_CHANNELS and name != self.lip_sync_channel]

    def set_channel_weight(self, channel: str, weight: float):
        if channel not in self.blend_shapes:
            logger.debug(f"Expression '{channel}' not available on this avatar")
            return
        self.blend_shapes[channel] = max(0.0, min(1.0, float(weight)))

    def get_channel_weight(self, channel: str) -> float:
        return self.blend_shapes.get(channel, 0.0)

    def snapshot(self) -> Dict[str, float]:
        return dict(self.blend_shapes)

    async def load_vrm_model(self, model_path: Path):
        """Load a VRM file and adopt the expression presets it defines."""
        model_path = Path(model_path)
        if not model_path.exists():
            raise FileNotFoundError(f"VRM model file not found: {model_path}")

        self.model_path = model_path.resolve()
        logger.info(f"Loading VRM model: {self.model_path}")

        raw = model_path.read_bytes()
        # GLB files start with the ASCII magic 'glTF'
        if raw[:4] == b'glTF':
            self.vrm_data = GLTF2.load_binary(str(model_path))
        else:
            self.vrm_data = GLTF2.from_json(raw.decode("utf-8", errors="replace"))

        self._parse_vrm_extensions()
        presets = self._expression_presets()
        if presets:
            self._setup_channels(presets + [self.lip_sync_channel])
        else:
            logger.warning("VRM model defines no expression presets; keeping configured channels")

        logger.info(f"VRM model loaded: {self.vrm_extensions.get('title') or model_path.name}")

    def _parse_vrm_extensions(self):
        extensions = (self.vrm_data.extensions if self.vrm_data else None) or {}

        if 'VRMC_vrm' in extensions:
            vrm = extensions['VRMC_vrm']
            self.vrm_extensions['spec'] = '1.0'
            self.vrm_extensions['title'] = vrm.get('meta', {}).get('name')
            self.vrm_extensions['expressions'] = vrm.get('expressions', {})
        elif 'VRM' in extensions:
            vrm = extensions['VRM']
            self.vrm_extensions['spec'] = '0.x'
            self.vrm_extensions['title'] = vrm.get('meta', {}).get('title')
            self.vrm_extensions['blendShapes'] = vrm.get('blendShapeMaster', {})

        logger.debug(f"Parsed VRM extensions: {list(self.vrm_extensions.keys())}")

    def _expression_presets(self) -> List[str]:
        names: List[str] = []
        if 'expressions' in self.vrm_extensions:
            names.extend(self.vrm_extensions['expressions'].get('preset', {}).keys())
        elif 'blendShapes' in self.vrm_extensions:
            for group in self.vrm_extensions['blendShapes'].get('blendShapeGroups', []):
                preset = group.get('presetName', '')
                name = VRM0_PRESET_MAPPING.get(preset, group.get('name', '') if preset == 'unknown' else preset)
                if name:
                    names.append(name)
        return names
