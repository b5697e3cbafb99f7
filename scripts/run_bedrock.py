import json
import logging
from pathlib import Path
import requests
from tqdm import tqdm

from bedrock_llm.config import load_model_config, bedrock_config_from_mapping
from bedrock_llm.errors import BedrockError
from bedrock_llm.model_adapters.bedrock_adapter import BedrockModel


def read_jsonl(p):
    # Yield one parsed record per line without loading the whole file
    with open(p, encoding="utf-8") as f:
        for line in f:
            if line.strip():
                yield json.loads(line)


def complete_records(model, items, stop=None):
    # One output record per prompt; failed prompts carry "error" instead of "response"
    log = logging.getLogger("run_bedrock")
    for item in items:
        rec = {"id": item["id"], "prompt": item["prompt"]}
        try:
            rec["response"] = model.generate(item["prompt"], stop=stop)
        except (BedrockError, requests.RequestException) as exc:
            log.error("prompt %s failed: %s", item["id"], exc)
            rec["error"] = str(exc)
        yield rec


def main():
    import argparse
    p = argparse.ArgumentParser()
    p.add_argument("--config_models", type=str, default="configs/models.yaml")
    p.add_argument("--prompts", type=str, required=True, help="JSONL file with 'id' and 'prompt' fields")
    p.add_argument("--out_file", type=str, default="runs/bedrock.jsonl")
    p.add_argument("--stop", type=str, action="append", default=None, help="stop sequence, repeatable")
    p.add_argument("--log_level", type=str, default="INFO")
    args = p.parse_args()

    logging.basicConfig(level=args.log_level, format="%(asctime)s | %(levelname)-8s | %(name)s: %(message)s")

    # Construction fails fast on a bad model id or missing region
    model = BedrockModel(bedrock_config_from_mapping(load_model_config(args.config_models)))

    out_file = Path(args.out_file)
    out_file.parent.mkdir(parents=True, exist_ok=True)
    failures = 0
    with open(out_file, "w", encoding="utf-8") as f:
        items = list(read_jsonl(args.prompts))
        for rec in complete_records(model, tqdm(items, desc=model.config.model_id), stop=args.stop):
            if "error" in rec:
                failures += 1
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")
    print(f"Wrote {out_file} ({failures} failed)")


if __name__ == "__main__":
    main()
