#!/usr/bin/env python3
"""
Language Model Training and Evaluation Script

Train a language model on a sentence corpus and evaluate it by perplexity
and by word error rate on speech n-best lists.

Usage:
    katzlm --train train.txt --validate valid.txt --model katz-trigram --cutoff 5
    katzlm --brown --categories news --model katz-bigram --generate 5
    katzlm --train train.txt --validate valid.txt --model interpolated --grid-search
"""

import argparse
import logging
import random
import sys

from rich.logging import RichHandler

from .config import ModelConfig, ModelType, model_class_for
from .corpus import extract_vocabulary, get_brown_categories, load_brown_corpus, read_sentences, split_sentences
from .evaluation import interpolation_grid, parameter_grid, read_nbest_lists, write_results_csv
from .katz import DEFAULT_CUTOFF
from .training import console, evaluate_model_cli, grid_search_cli, show_generated, train_model_cli

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='katzlm',
        description="Train and evaluate n-gram language models with Katz back-off smoothing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Available models:
  baseline      - Empirical unigram
  bigram        - Empirical bigram mixed with the unigram
  trigram       - Empirical trigram mixture (0.5 / 0.3 / 0.2)
  katz-unigram  - Good-Turing discounted unigram
  katz-bigram   - Katz back-off bigram
  katz-trigram  - Katz back-off trigram
  interpolated  - Trigram mixture with --lambda1/--lambda2 (Katz components with --cutoff)
  sri           - Precomputed ARPA model (--arpa)
        """
    )

    data = parser.add_argument_group('data')
    data.add_argument('--train', type=str, default=None,
                      help='Training corpus, one sentence per line')
    data.add_argument('--validate', type=str, default=None,
                      help='Validation corpus, one sentence per line')
    data.add_argument('--nbest', type=str, default=None,
                      help='N-best list file or directory of *.nbest files')
    data.add_argument('--brown', action='store_true',
                      help='Train on the Brown corpus (last 10%% held out for validation)')
    data.add_argument('-c', '--categories', type=str, nargs='+', default=None,
                      help='Brown corpus categories to use (default: all)')
    data.add_argument('--list-categories', action='store_true',
                      help='List available Brown corpus categories and exit')

    model = parser.add_argument_group('model')
    model.add_argument('-m', '--model', type=str, default='baseline',
                       choices=[t.value for t in ModelType],
                       help='Model to build (default: baseline)')
    model.add_argument('-k', '--cutoff', type=int, default=None,
                       help=f'Discounting cutoff K (default: {DEFAULT_CUTOFF} for Katz models)')
    model.add_argument('--lambda1', type=float, default=0.5,
                       help='Trigram weight of the interpolated model (default: 0.5)')
    model.add_argument('--lambda2', type=float, default=0.3,
                       help='Bigram weight of the interpolated model (default: 0.3)')
    model.add_argument('--unknown-count', type=float, default=1.0,
                       help='Fictitious count for unknown words (default: 1.0)')
    model.add_argument('--arpa', type=str, default=None,
                       help='ARPA file for the sri model')

    run = parser.add_argument_group('run')
    run.add_argument('--grid-search', action='store_true',
                     help='Sweep hyperparameters on the validation corpus first')
    run.add_argument('--cutoffs', type=int, nargs='+', default=None,
                     help='Cutoffs swept by --grid-search')
    run.add_argument('--results-csv', type=str, default=None,
                     help='Write grid-search rows to this CSV file')
    run.add_argument('--generate', type=int, default=0,
                     help='Number of sentences to sample after training')
    run.add_argument('--seed', type=int, default=None,
                     help='Random seed for sentence generation')
    run.add_argument('--save', type=str, default=None,
                     help='Path to save the trained counts')
    run.add_argument('--load', type=str, default=None,
                     help='Path to load saved counts instead of training')
    run.add_argument('-v', '--verbose', action='store_true',
                     help='Debug logging and per-utterance WER output')
    return parser


def _grid_points(args, model_type: ModelType):
    if model_type == ModelType.INTERPOLATED:
        return interpolation_grid(cutoffs=args.cutoffs)
    if model_type in (ModelType.KATZ_UNIGRAM, ModelType.KATZ_BIGRAM, ModelType.KATZ_TRIGRAM):
        return parameter_grid(cutoff=args.cutoffs or list(range(2, 11)))
    if model_type in (ModelType.BASELINE, ModelType.BIGRAM, ModelType.TRIGRAM):
        return parameter_grid(unknown_count=[0.1, 0.5, 1.0, 2.0])
    raise ValueError(f"no hyperparameters to search for the {model_type.value} model")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.list_categories:
        console.print("Available Brown corpus categories:")
        for cat in get_brown_categories():
            console.print(f"  - {cat}")
        return 0

    model_type = ModelType(args.model)
    cutoff = args.cutoff
    if cutoff is None and model_type != ModelType.INTERPOLATED:
        cutoff = DEFAULT_CUTOFF
    config = ModelConfig(
        model_type=model_type,
        cutoff=cutoff,
        lambda1=args.lambda1,
        lambda2=args.lambda2,
        unknown_count=args.unknown_count,
        arpa_path=args.arpa,
    )

    train_sentences = []
    validation_sentences = []
    if args.brown:
        sentences, stats = load_brown_corpus(categories=args.categories)
        console.print(f"[green]✓[/green] Loaded {stats['num_sentences']:,} sentences "
                      f"({stats['total_tokens']:,} tokens)")
        train_sentences, validation_sentences = split_sentences(sentences)
    if args.train:
        train_sentences = list(read_sentences(args.train))
    if args.validate:
        validation_sentences = list(read_sentences(args.validate))
    logger.debug("%d training and %d validation sentences",
                 len(train_sentences), len(validation_sentences))

    if model_type == ModelType.SRI and not args.arpa:
        parser.error("--model sri requires --arpa")
    if model_type != ModelType.SRI and not args.load and not train_sentences:
        parser.error("no training data: give --train, --brown or --load")

    nbest_lists = None
    if args.nbest:
        vocabulary = extract_vocabulary(train_sentences) if train_sentences else None
        nbest_lists = read_nbest_lists(args.nbest, vocabulary=vocabulary)

    if args.grid_search:
        if not validation_sentences:
            parser.error("--grid-search needs validation sentences")
        points = _grid_points(args, model_type)
        result = grid_search_cli(config, points, train_sentences, validation_sentences, nbest_lists)
        if args.results_csv:
            write_results_csv(result.rows, args.results_csv)
        if result.best_params is None:
            return 1
        for key, value in result.best_params.items():
            setattr(config, key, value)

    if args.load:
        with console.status(f"[cyan]Loading model from {args.load}..."):
            model = model_class_for(model_type).load(args.load)
        console.print(f"[green]✓[/green] Model loaded from: [bold]{args.load}[/bold]")
    else:
        model = train_model_cli(config, train_sentences, save_path=args.save)

    if validation_sentences or nbest_lists:
        evaluate_model_cli(model, validation_sentences, nbest_lists, verbose=args.verbose)

    if args.generate:
        show_generated(model, args.generate, random.Random(args.seed))

    return 0


if __name__ == '__main__':
    sys.exit(main())
