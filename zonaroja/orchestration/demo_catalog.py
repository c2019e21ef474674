"""Seed catalog for the local datastore (offline demos and tests)."""

from __future__ import annotations

from typing import Any, Dict, List


def _question(
    qid: str,
    topic_id: str,
    text: str,
    difficulty: str,
    options: List[tuple],
) -> Dict[str, Any]:
    return {
        "id": qid,
        "topic_id": topic_id,
        "text": text,
        "difficulty": difficulty,
        "options": [
            {
                "id": f"{qid}-{label}",
                "text": option_text,
                "is_correct": is_correct,
                "rationale": rationale,
            }
            for label, (option_text, is_correct, rationale) in zip("abcd", options)
        ],
    }


DEMO_CATALOG: Dict[str, Any] = {
    "exams": [
        {"id": "exam-ucr", "name": "Prueba de Aptitud Académica UCR"},
        {"id": "exam-tec", "name": "Examen de Admisión TEC"},
    ],
    "topics": [
        {"id": "ucr-logica", "exam_id": "exam-ucr", "name": "Lógica Proposicional"},
        {"id": "ucr-lectura", "exam_id": "exam-ucr", "name": "Comprensión de Textos"},
        {"id": "ucr-series", "exam_id": "exam-ucr", "name": "Secuencias Numéricas"},
        {"id": "tec-figuras", "exam_id": "exam-tec", "name": "Análisis de Figuras"},
        {"id": "tec-algebra", "exam_id": "exam-tec", "name": "Razonamiento Algebraico"},
    ],
    "questions": [
        _question(
            "q-log-1",
            "ucr-logica",
            "Si todos los atletas entrenan y Ana no entrena, ¿qué se concluye?",
            "media",
            [
                ("Ana es atleta", False, "Confundís la conclusión con la premisa."),
                ("Ana no es atleta", True, "Por contraposición, quien no entrena no es atleta."),
                ("Ana entrena a veces", False, "Agregás información que no está en las premisas."),
                ("No se puede saber", False, "La contraposición sí permite concluir."),
            ],
        ),
        _question(
            "q-log-2",
            "ucr-logica",
            "¿Cuál es la negación de 'todos los gatos son negros'?",
            "dificil",
            [
                ("Ningún gato es negro", False, "Negar un 'todos' no equivale a 'ninguno'."),
                ("Algún gato no es negro", True, "La negación de un universal es un existencial negado."),
                ("Todos los gatos son blancos", False, "Cambiás el predicado en lugar de negarlo."),
                ("Algún gato es negro", False, "Eso no contradice la afirmación original."),
            ],
        ),
        _question(
            "q-log-3",
            "ucr-logica",
            "Si llueve, la calle se moja. La calle está mojada. ¿Qué se concluye?",
            "media",
            [
                ("Llovió", False, "Afirmar el consecuente es una falacia."),
                ("No llovió", False, "Negar el antecedente tampoco es válido aquí."),
                ("No se puede concluir que llovió", True, "La calle pudo mojarse por otra causa."),
                ("La calle siempre está mojada", False, "Generalizás sin evidencia."),
            ],
        ),
        _question(
            "q-lec-1",
            "ucr-lectura",
            "Según el texto, ¿cuál es la idea principal del segundo párrafo?",
            "facil",
            [
                ("Un detalle del ejemplo", False, "Tomás un detalle como si fuera la idea central."),
                ("La tesis que el autor defiende", True, "El párrafo gira en torno a la tesis."),
                ("La opinión del lector", False, "Mezclás tu opinión con la del autor."),
                ("La conclusión del texto", False, "La conclusión aparece hasta el final."),
            ],
        ),
        _question(
            "q-lec-2",
            "ucr-lectura",
            "¿Qué se infiere del tono del autor?",
            "dificil",
            [
                ("Es neutral", False, "Ignorás los adjetivos valorativos del texto."),
                ("Es crítico", True, "Los adjetivos valorativos revelan una postura crítica."),
                ("Es indiferente", False, "El texto toma posición claramente."),
                ("Es humorístico", False, "No hay recursos de humor en el texto."),
            ],
        ),
        _question(
            "q-ser-1",
            "ucr-series",
            "¿Qué número sigue: 2, 6, 12, 20, 30, ...?",
            "media",
            [
                ("40", False, "Sumás una diferencia constante que no existe."),
                ("42", True, "Las diferencias crecen de 2 en 2: 4, 6, 8, 10, 12."),
                ("36", False, "Repetís la última diferencia."),
                ("44", False, "Saltás una diferencia."),
            ],
        ),
        _question(
            "q-ser-2",
            "ucr-series",
            "¿Qué número sigue: 1, 1, 2, 3, 5, 8, ...?",
            "facil",
            [
                ("11", False, "Sumás 3 en vez de sumar los dos anteriores."),
                ("13", True, "Cada término es la suma de los dos anteriores."),
                ("12", False, "Duplicás un término anterior."),
                ("16", False, "Multiplicás en lugar de sumar."),
            ],
        ),
        _question(
            "q-fig-1",
            "tec-figuras",
            "¿Qué figura completa la secuencia de rotaciones de 90°?",
            "media",
            [
                ("Figura A", False, "Rotás en sentido contrario."),
                ("Figura B", True, "Mantiene la rotación horaria de 90°."),
                ("Figura C", False, "Reflejás en lugar de rotar."),
                ("Figura D", False, "Rotás 180° de una vez."),
            ],
        ),
        _question(
            "q-alg-1",
            "tec-algebra",
            "Si 3x + 5 = 20, ¿cuánto vale x?",
            "facil",
            [
                ("5", True, "Restás 5 y dividís entre 3."),
                ("15", False, "Olvidás dividir entre 3."),
                ("25/3", False, "Sumás 5 en lugar de restarlo."),
                ("3", False, "Dividís antes de despejar el término constante."),
            ],
        ),
    ],
}
