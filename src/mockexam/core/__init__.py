"""Core pipeline modules.

- contracts: Strict versioned output schemas (mock_exam_v1, open_grading_v1,
  training_material_v1)
- exam_generator: Exam generation with corrective retries
- answer_key: Deterministic multiple-choice scoring
- open_grader: Short and essay grading in one completion call
- exam_grader: Grade report assembly and the grading entry point
- training_material: Remedial material from past mistakes
- models: Exam, answer and report data classes
- errors: Pipeline exception hierarchy
"""

__all__ = [
    "contracts",
    "exam_generator",
    "answer_key",
    "open_grader",
    "exam_grader",
    "training_material",
    "models",
    "errors",
]
