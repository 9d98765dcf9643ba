"""
Emotion rule table.

The built-in table fits a blunt, easily flustered persona speaking Japanese.
A replacement table can be loaded from YAML with ``load_rules``:

    rules:
      - name: joy
        priority: 0
        emotion: happy
        weight: 0.15
        patterns: ["できた[！!]?"]
        keywords: ["成功"]
        duration_ms: 1500
      - name: flustered
        priority: 10
        emotions:
          - {name: surprised, weight: 0.5}
          - {name: sad, weight: 0.5}
        keywords: ["恥ずかしい"]
"""

import logging
from pathlib import Path
from typing import List, Union

from .classifier import EmotionRule, make_rule

logger = logging.getLogger(__name__)


DEFAULT_RULES: List[EmotionRule] = [
    # Embarrassment
    make_rule(
        "heavy_embarrassment", 10,
        emotions=[("surprised", 0.5), ("sad", 0.5)],
        patterns=[
            r"[なそばちまや]、[なそばちまや]、",  # stutter
            r"からかってるのか[！!？?]",
            r"恥ずかしい[！!？?]",
            r"冗談だろ[！!？?]",
            r"バカ[！!]",
        ],
        keywords=["からかって", "恥ずかしい", "冗談だろ", "バカ！"],
        duration_ms=2000,
    ),
    make_rule(
        "embarrassment", 9,
        emotions=[("surprised", 0.3), ("sad", 0.3)],
        patterns=[
            r"[べそち]、[べそち].*に",
            r"勘違いするな",
            r"なんでもない[！!]?",
            r"そういうわけじゃない",
        ],
        keywords=["べ、別に", "そ、そんな", "ち、違う", "勘違い", "なんでもない"],
        duration_ms=1500,
    ),
    make_rule(
        "light_embarrassment", 8,
        emotions=[("surprised", 0.1), ("happy", 0.1)],
        patterns=[
            r"\.\.\.別に",
            r"\.\.\.たまたま",
            r"お前のためじゃない",
            r"普通だろ",
        ],
        keywords=["...別に", "...たまたまだ", "...お前のためじゃない", "...まあ、少しは"],
        duration_ms=1000,
    ),

    make_rule(
        "surprise", 7,
        emotion="surprised", weight=0.3,
        patterns=[
            r"^え[！!？?]+$",
            r"^えっ[！!]+$",
            r"マジか",
            r"本当か[？?]",
            r"嘘だろ",
            r"なんだって[？?]",
        ],
        keywords=["え！？", "えっ！", "おお！", "わっ！", "マジか", "本当か？", "嘘だろ"],
        duration_ms=500,
    ),

    make_rule(
        "exasperation", 6,
        emotions=[("angry", 0.4), ("sad", 0.3)],
        patterns=[
            r"はあ[？?]",
            r"はぁ.*何やって",
            r"マジで言ってるのか[？?]",
            r"大丈夫かお前",
            r"意味分からん",
        ],
        keywords=["はあ？", "マジで言ってるのか？", "大丈夫かお前", "何それ"],
        duration_ms=1200,
    ),

    # Anger
    make_rule(
        "stern_warning", 5,
        emotion="angry", weight=0.7,
        patterns=[
            r"いい加減にしろ",
            r"ちゃんとしろよ",
            r"ダメだ、それは",
            r"気をつけろよ",
            r"しっかりしろ",
        ],
        keywords=["いい加減にしろ", "ちゃんとしろよ", "ダメだ", "気をつけろよ", "しっかりしろ"],
        duration_ms=1500,
    ),
    make_rule(
        "retort", 4,
        emotion="angry", weight=0.4,
        patterns=[
            r"ちょっと待て",
            r"違うぞ",
            r"おかしくない[か？?]",
            r"逆だろ",
            r"矛盾してる",
        ],
        keywords=["ちょっと待て", "おい", "違うぞ", "おかしくないか？", "逆だろ"],
        duration_ms=1000,
    ),

    # Sadness
    make_rule(
        "deep_sadness", 3,
        emotion="sad", weight=0.75,
        patterns=[
            r"また失敗か",
            r"全然ダメだ",
            r"もう無理かもしれない",
            r"諦めるしかない",
            r"何度やってもダメ",
        ],
        keywords=["また失敗か", "全然ダメだ", "もう無理", "諦める", "何度やってもダメ"],
        duration_ms=2000,
    ),
    make_rule(
        "setback", 2,
        emotion="sad", weight=0.5,
        patterns=[
            r"参った",
            r"困った",
            r"だめだった",
            r"失敗",
            r"やっちゃった",
            r"ミスった",
            r"エラー",
        ],
        keywords=["参った", "困った", "だめだった", "失敗", "やっちゃった", "ミスった", "エラー"],
        duration_ms=1500,
    ),
    make_rule(
        "unease", 1,
        emotion="sad", weight=0.3,
        patterns=[
            r"うーん",
            r"どうしよう",
            r"心配",
            r"不安",
            r"微妙",
            r"分からん",
            r"仕方ない",
        ],
        keywords=["うーん", "どうしよう", "心配", "不安", "微妙", "分からん", "仕方ない", "しょうがない"],
        duration_ms=1000,
    ),

    make_rule(
        "joy", 0,
        emotion="happy", weight=0.15,
        patterns=[
            r"できた[！!]?",
            r"うまくいった",
            r"よし[！!、]",
            r"完了",
            r"成功",
            r"えへ",
            r"あはは",
            r"ふふ",
            r"すごいな",
            r"いいじゃないか",
            r"綺麗",
        ],
        keywords=["できた", "うまくいった", "よし", "完了", "成功", "えへ", "あはは", "ふふ",
                  "へへ", "すごいな", "いいじゃないか"],
        duration_ms=1500,
    ),
    make_rule(
        "gratitude", 0,
        emotions=[("surprised", 0.1), ("happy", 0.1)],
        patterns=[
            r"ありがとな",
            r"助かった",
            r"感謝してる",
            r"サンキュー",
            r"恩に着る",
        ],
        keywords=["ありがとな", "助かった", "感謝", "サンキュー", "恩に着る"],
        duration_ms=1000,
    ),
    make_rule(
        "apology", 0,
        emotion="sad", weight=0.5,
        patterns=[
            r"悪かった",
            r"間違ってた",
            r"すまない",
            r"ごめん",
            r"申し訳ない",
        ],
        keywords=["悪かった", "間違ってた", "すまない", "ごめん", "申し訳ない"],
        duration_ms=1500,
    ),
]


def load_rules(path: Union[str, Path]) -> List[EmotionRule]:
    """Load an emotion table from a YAML file."""
    import yaml

    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    rules = []
    for entry in data.get('rules', []):
        emotions = entry.get('emotions')
        rules.append(make_rule(
            entry['name'],
            int(entry.get('priority', 0)),
            emotion=entry.get('emotion'),
            weight=float(entry.get('weight', 1.0)),
            emotions=[(e['name'], float(e['weight'])) for e in emotions] if emotions else None,
            patterns=entry.get('patterns', []),
            keywords=entry.get('keywords', []),
            duration_ms=int(entry.get('duration_ms', 1000)),
        ))

    logger.info(f"Loaded {len(rules)} emotion rules from {path}")
    return rules
