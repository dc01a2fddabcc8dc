"""
PDF Studio - Command-line driver for the document AI features.

Reads extracted document text from a plain-text file and runs one AI
operation through the inference orchestrator, printing the result.
"""

import argparse
import sys
from pathlib import Path

from pdfstudio.ai import InferenceOrchestrator
from pdfstudio.config import load_ai_config
from pdfstudio.logging_config import close_debug_log, error, info

OPERATIONS = ('summarize', 'chat', 'entities', 'translate', 'insights',
              'sensitive', 'tables', 'structure')


def run_operation(orchestrator: InferenceOrchestrator, operation: str, text: str,
                  title: str, message: str, language: str) -> str:
    """Run one operation and format its output for the console."""
    if operation == 'summarize':
        return orchestrator.summarize(text, title=title)
    if operation == 'chat':
        return orchestrator.chat(text, message)
    if operation == 'translate':
        return orchestrator.translate(text, language)
    if operation == 'insights':
        response = orchestrator.generate_insights(text)
        return (f"{response.text}\n\n"
                f"(model: {response.model_used}, confidence: {response.confidence:.2f}, "
                f"{response.processing_time_ms} ms)")

    list_operations = {
        'entities': orchestrator.extract_entities,
        'sensitive': orchestrator.detect_sensitive_content,
        'tables': orchestrator.extract_tables,
        'structure': orchestrator.detect_structure,
    }
    items = list_operations[operation](text)
    return "\n".join(f"- {item}" for item in items)


def main(argv=None) -> int:
    """Command-line interface for the orchestrator."""
    parser = argparse.ArgumentParser(
        description="PDF Studio AI - Run document AI operations on extracted text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Summarize a document
  python -m pdfstudio.main --input report.txt

  # Ask a question about it
  python -m pdfstudio.main --input report.txt --operation chat --message "Who signed it?"

  # Skip the AI microservice and use local models only
  python -m pdfstudio.main --input report.txt --no-remote

  # Debug mode (verbose logging)
  DEBUG=true python -m pdfstudio.main --input report.txt
        """
    )

    parser.add_argument(
        '--input',
        required=True,
        help='UTF-8 text file holding the extracted document text'
    )

    parser.add_argument(
        '--operation',
        default='summarize',
        choices=OPERATIONS,
        help='AI operation to run (default: summarize)'
    )

    parser.add_argument(
        '--message',
        default='',
        help='Question for the chat operation'
    )

    parser.add_argument(
        '--language',
        default='Spanish',
        help='Target language for the translate operation (default: Spanish)'
    )

    parser.add_argument(
        '--config',
        default=None,
        help='AI configuration YAML (default: config/ai_config.yaml)'
    )

    parser.add_argument(
        '--no-remote',
        action='store_true',
        help='Do not probe the AI microservice'
    )

    args = parser.parse_args(argv)

    input_path = Path(args.input)
    try:
        text = input_path.read_text(encoding='utf-8', errors='replace')
    except OSError as e:
        error(f"Cannot read input file {input_path}: {e}")
        return 1

    overrides = {'remote_enabled': False} if args.no_remote else {}
    try:
        config = load_ai_config(args.config, **overrides)
    except ValueError as e:
        error(f"Invalid AI configuration: {e}")
        return 2

    with InferenceOrchestrator(config) as orchestrator:
        info(f"Running {args.operation} on {input_path.name} (tier: {orchestrator.tier.value})")
        output = run_operation(orchestrator, args.operation, text, input_path.name,
                               args.message, args.language)

    print("=" * 60)
    print(f"{args.operation.upper()} [{orchestrator.tier.value}: {orchestrator.model_type}]")
    print("=" * 60)
    print(output)

    close_debug_log()
    return 0


if __name__ == "__main__":
    sys.exit(main())
