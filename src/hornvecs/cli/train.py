"""Training commands: skipgram, cbow and supervised."""

import argparse
import json
import os
import sys
from typing import Dict

from hornvecs.api import HornVecs
from hornvecs.cli_args import create_args
from hornvecs.utils import set_seed


def save_training_artifacts(model: HornVecs) -> Dict[str, str]:
    """Write the model, its word vectors and, when requested, the output matrix.

    Args:
        model: Trained model

    Returns:
        Mapping of artifact kind to the path written
    """
    artifacts: Dict[str, str] = {}
    try:
        artifacts["model"] = model.save_model()
        artifacts["vectors"] = model.save_vectors()
        if model.args.save_output:
            artifacts["output"] = model.save_output()
    except BaseException:
        # A failed run leaves no artifacts behind
        for path in artifacts.values():
            if os.path.exists(path):
                os.remove(path)
        raise
    return artifacts


def main(namespace: argparse.Namespace) -> int:
    """Train one model from parsed command line arguments.

    Args:
        namespace: Parsed arguments of a training command

    Returns:
        Process exit status
    """
    args = create_args(namespace).validate()
    set_seed(args.seed)

    if args.verbose > 0:
        print(f"Starting {args.model} training...", file=sys.stderr)

    model = HornVecs().train(args)
    artifacts = save_training_artifacts(model)

    if args.verbose > 0:
        print(json.dumps(artifacts, indent=2), file=sys.stderr)
    return 0
