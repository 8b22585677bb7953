# Pipeline configs: plain dicts consumed by PipelineOrchestrator.
import copy

DEMO_RECORDS = [
    {
        "id": "b1",
        "title": "Python asyncio tutorial",
        "url": "https://www.realpython.com/async-io-python/?utm_source=newsletter",
        "tags": ["python", "async"],
        "createdAt": 1_700_000_000_000,
    },
    {
        "id": "b2",
        "title": "Async IO in Python: A Complete Walkthrough",
        "url": "http://realpython.com/async-io-python",
        "tags": ["python", "async", "tutorial"],
        "createdAt": 1_700_100_000_000,
    },
    {
        "id": "b3",
        "title": "Rust ownership explained",
        "url": "https://doc.rust-lang.org/book/ch04-01-what-is-ownership.html",
        "tags": ["rust", "memory"],
        "createdAt": 1_690_000_000_000,
    },
    {
        "id": "b4",
        "title": "Understanding Rust ownership and borrowing",
        "url": "https://doc.rust-lang.org/book/ch04-02-references-and-borrowing.html",
        "tags": ["rust"],
        "createdAt": 1_691_000_000_000,
    },
    {
        "id": "n1",
        "title": "Reading list for the weekend",
        "description": "Finish the asyncio walkthrough and the ownership chapter.",
        "kind": "note",
        "createdAt": 1_701_000_000_000,
    },
]


FULL_PIPELINE_CONFIG = {
    "name": "Full_Vault_Analysis",
    "debug": False,
    "steps": [
        # STEP 1: Input
        {
            "type": "load_records",
            "settings": {"path": "records.json"}
        },
        {
            "type": "fingerprint_records",
            "settings": {"batch_size": 500}
        },

        # STEP 2: Duplicates
        {
            "type": "module",
            "settings": {
                "name": "Deduplication",
                "steps": [
                    {
                        "type": "find_duplicates",
                        "settings": {"url_threshold": 85, "title_threshold": 80}
                    },
                    {
                        "type": "plan_merges",
                        "settings": {}
                    },
                    {
                        "type": "cleanup_recommendations",
                        "settings": {"stale_days": 365}
                    },
                ]
            }
        },

        # STEP 3: Knowledge graph
        {
            "type": "module",
            "settings": {
                "name": "KnowledgeGraph",
                "steps": [
                    {
                        "type": "build_graph",
                        "settings": {}
                    },
                    {
                        "type": "similarity_edges",
                        "settings": {"threshold": 10}
                    },
                    {
                        "type": "layout_graph",
                        "settings": {"width": 1200, "height": 800, "iterations": 80}
                    },
                    {
                        "type": "graph_insights",
                        "settings": {}
                    },
                ]
            }
        },
    ]
}


def build_full_config(path: str, width: float = 1200, height: float = 800,
                      iterations: int = 80, debug: bool = False) -> dict:
    config = copy.deepcopy(FULL_PIPELINE_CONFIG)
    config["debug"] = debug
    config["steps"][0]["settings"]["path"] = path
    layout_step = config["steps"][3]["settings"]["steps"][2]
    layout_step["settings"].update({"width": width, "height": height, "iterations": iterations})
    return config


def build_demo_config(width: float = 1200, height: float = 800,
                      iterations: int = 80, debug: bool = False) -> dict:
    """Same pipeline with inline records, no file needed."""
    config = build_full_config("", width, height, iterations, debug)
    config["name"] = "Demo_Vault_Analysis"
    config["steps"][0] = {
        "type": "mock_records",
        "settings": {"records": copy.deepcopy(DEMO_RECORDS)}
    }
    return config
