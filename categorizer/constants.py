from __future__ import annotations

"""Built-in category vocabulary used by the hybrid scorer.

``DEFAULT_SEED_CATEGORIES`` is written to the seed file on first run.
``DEFAULT_CATEGORY_RULES`` maps a seed label to its strong / weak / anti
keyword lists; a JSON rule file may override any label wholesale.
"""

DEFAULT_SEED_CATEGORIES = [
    "CG・デジタルアーカイブ",
    "VR空間",
    "アバター",
    "インタラクション",
    "エージェント",
    "コミュニケーション",
    "ソーシャルVR",
    "可視化",
    "工学・サイエンスコミュニケーション",
    "応用数理",
    "感覚・知覚",
    "教育",
    "機械学習",
    "社会",
]

DEFAULT_CATEGORY_RULES = {
    "CG・デジタルアーカイブ": {
        "strong": [
            "デジタルアーカイブ", "文化財", "文化遺産", "博物館資料", "フォトグラメトリ",
            "写真測量", "三次元復元", "3D復元", "点群", "LiDAR", "レーザースキャン",
            "スキャンデータ", "メッシュ再構成", "SfM", "Structure from Motion",
        ],
        "weak": [
            "モデリング", "リトポロジー", "リトポ", "UV展開", "テクスチャ", "ベイク",
            "レンダリング", "GLTF", "GLB", "OBJ", "PLY", "点群処理", "データ保存", "アノテーション",
        ],
    },
    "VR空間": {
        "strong": [
            "VR空間", "仮想空間", "仮想環境", "仮想世界", "メタバース", "VRChat", "cluster",
            "Neos", "Spatial", "HMD", "ヘッドマウントディスプレイ", "Oculus", "Meta Quest",
            "Quest2", "Quest3", "Vive", "Index", "OpenXR",
        ],
        "weak": [
            "インスタンス", "ワールド", "ルームスケール", "トラッキング", "フルトラ", "IK",
            "アイトラ", "ハンドトラッキング", "アイトラッキング",
        ],
    },
    "アバター": {
        "strong": [
            "アバター", "アバター生成", "アバター編集", "フェイシャル", "表情認識",
            "モーションキャプチャ", "モーキャプ", "リギング", "スキニング", "ボーン",
            "ブレンドシェイプ", "VRCアバター", "VRM", "Humanoid",
        ],
        "weak": ["衣装", "衣装替え", "髪物理", "揺れもの", "体型調整", "顔トラッキング", "表情制御"],
    },
    "インタラクション": {
        "strong": [
            "インタラクション", "UI", "UX", "操作手法", "選択操作", "ポインティング", "ジェスチャ",
            "姿勢推定", "身体性", "ハプティクス", "触覚提示", "力覚提示", "モーダル切替", "メニュー操作",
        ],
        "weak": ["没入感", "プレゼンス", "使い勝手", "フィードバック", "提示手法", "視線入力", "手入力", "音声入力"],
    },
    "エージェント": {
        "strong": [
            "エージェント", "会話エージェント", "対話エージェント", "自律エージェント",
            "LLMエージェント", "NPC", "行動計画", "プランニング", "強化学習", "RL",
            "Reinforcement Learning",
        ],
        "weak": ["アシスタント", "ナビゲーション", "案内", "対話支援", "ルールベース"],
    },
    "コミュニケーション": {
        "strong": ["コミュニケーション", "会話", "対話", "交流", "ソーシャルサポート", "関係構築", "協調作業", "コラボレーション"],
        "weak": ["雑談", "アイスブレイク", "発話", "感情", "感情推定", "同席感"],
    },
    "ソーシャルVR": {
        "strong": [
            "ソーシャルVR", "VRChat", "cluster", "Neos", "メタバースプラットフォーム",
            "インスタンス制御", "フレンド機能", "イベント開催",
        ],
        "weak": ["アバターマーケット", "ワールドアップロード", "コミュニティ運営", "Booth", "配信イベント"],
    },
    "可視化": {
        "strong": ["可視化", "視覚化", "可視化手法", "可視化技術", "可視化結果", "ボリュームレンダリング", "等値面", "流線", "点群可視化"],
        "weak": ["3D可視化", "VR可視化", "インタラクティブ可視化", "可視化ツール"],
    },
    "工学・サイエンスコミュニケーション": {
        "strong": ["科学コミュニケーション", "サイエンスコミュニケーション", "アウトリーチ", "展示解説", "科学館", "博物館", "ミュージアム", "STEAM"],
        "weak": ["市民参加", "ワークショップ", "普及啓発", "体験学習"],
    },
    "応用数理": {
        "strong": ["最適化", "数値解析", "数理モデル", "シミュレーション", "微分方程式", "ベイズ推定", "確率過程", "離散化", "有限要素法", "FEM"],
        "weak": ["近似", "数理的", "解析的", "再現実験"],
    },
    "感覚・知覚": {
        "strong": ["知覚", "感覚", "多感覚", "触覚", "前庭", "視覚認知", "錯視", "VR酔い", "サッカード", "順応", "感度"],
        "weak": ["感性", "疲労", "快不快", "主観評価", "SSQ", "SUS"],
    },
    "教育": {
        "strong": ["教育", "授業", "教材", "学習", "訓練", "トレーニング", "指導", "評価", "ルーブリック", "授業設計"],
        "weak": ["eラーニング", "学習効果", "学習支援", "教育実践", "実証授業"],
    },
    "機械学習": {
        "strong": ["機械学習", "ディープラーニング", "深層学習", "ニューラルネットワーク", "Transformer", "BERT", "学習モデル", "分類器", "回帰"],
        "weak": ["特徴量", "埋め込み", "ベクトル", "クラスタリング", "次元削減"],
    },
    "社会": {
        "strong": ["社会", "倫理", "ガバナンス", "プライバシー", "規範", "制度", "アクセシビリティ", "包摂", "障害当事者"],
        "weak": ["普及", "受容", "合意形成", "文化", "コミュニティ規約"],
    },
}

# A strong hit in any of these (spatial / interactive media) ...
DAMPING_TRIGGER_CATEGORIES = ["VR空間", "インタラクション", "アバター"]
# ... slightly damps these overly generic competitors.
DAMPING_TARGET_CATEGORIES = ["教育", "可視化"]
