"""
Research Report - YAML workflow with parallel waves

This example demonstrates:
- Loading a workflow from a YAML document
- Independent steps running concurrently in the same wave
- Passing outputs between steps with {{ steps.<id>.output.<path> }}
- Run-level variables with {{ variables.<name> }}
- Streaming lifecycle events while the workflow runs

## Scenario
Two research skills (web and papers) run in parallel in the first wave.
A summarizer combines both results, and a report writer turns the summary
into a titled report. The whole run takes roughly the time of the slowest
research call plus the two sequential steps, not the sum of all four.

## Key Takeaways
- Waves come from depends_on, not from declaration order
- A whole-string reference keeps its type (the sources list stays a list)
- An embedded reference is spliced in as text
- The final "complete" event carries the ExecutionResult

## Run with
```bash
PYTHONPATH=src python examples/research_report.py
```
"""

import asyncio
import logging

from skillflow import ExecutionOptions, SkillRegistry, WorkflowEngine, parse_workflow, skill

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

WORKFLOW = """
name: research-report
version: "1.0"
description: Research a topic from two sources and write a report
steps:
  - id: web
    skill: web_research
    input:
      query: "{{ variables.topic }}"
    retry:
      max_attempts: 3
      backoff: exponential
  - id: papers
    skill: paper_search
    input:
      query: "{{ variables.topic }}"
      limit: 2
  - id: summarize
    skill: summarizer
    depends_on: [web, papers]
    input:
      web: "{{ steps.web.output.content }}"
      papers: "{{ steps.papers.output.titles }}"
    timeout: 5000
  - id: report
    skill: report_writer
    depends_on: summarize
    input:
      title: "Report on {{ variables.topic }}"
      summary: "{{ steps.summarize.output.summary }}"
      sources: "{{ steps.papers.output.titles }}"
"""

registry = SkillRegistry()


@skill(name="web_research", registry=registry)
async def web_research(input: dict) -> dict:
    await asyncio.sleep(0.3)
    return {"content": f"Recent articles about {input['query']} focus on error correction."}


@skill(name="paper_search", registry=registry)
async def paper_search(input: dict) -> dict:
    await asyncio.sleep(0.2)
    titles = [f"{input['query'].title()} Survey", f"Scaling {input['query'].title()}"]
    return {"titles": titles[: input["limit"]]}


@skill(name="summarizer", registry=registry)
def summarizer(input: dict) -> dict:
    # Plain functions run in a worker thread
    return {"summary": f"{input['web']} Key papers: {', '.join(input['papers'])}."}


@skill(name="report_writer", registry=registry)
async def report_writer(input: dict) -> dict:
    lines = [input["title"], "=" * len(input["title"]), input["summary"], ""]
    lines += [f"- {source}" for source in input["sources"]]
    return {"report": "\n".join(lines)}


async def main():
    workflow = parse_workflow(WORKFLOW)
    engine = WorkflowEngine(registry=registry)

    print(engine.get_execution_plan(workflow).level_graph())

    options = ExecutionOptions(variables={"topic": "quantum computing"})
    async for event in engine.stream_workflow(workflow, options):
        if event.type == "step-complete":
            print(f"  done: {event.step_id}")
        elif event.type == "complete":
            result = event.result
            print(f"\nsuccess={result.success} in {result.duration_ms:.0f}ms\n")
            print(result.context.output("report")["report"])


if __name__ == "__main__":
    asyncio.run(main())
