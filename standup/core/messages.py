"""User-facing texts of the daily ritual (Spanish)."""

MORNING = (
    "👋 ¡Buen día! Recuerda tomar tu Daily ✨\n\n"
    "Aquí tienes un formato sencillo que puedes seguir:\n\n"
    "📌 Hoy me enfocaré en:\n"
    "1. Resolver el algoritmo \"Two Sum\".\n"
    "2. Aprender sobre \"Reactive Forms en Angular\".\n\n"
    "Recuerda: sé breve y específico para mantener el enfoque.\n"
    "¡Tú puedes con todo! 🌟🚀"
)

ACK_MORNING = (
    "✅ ¡Recibido! Gracias por compartir tu daily.\n"
    "🌞 ¡Que tengas un día productivo y lleno de logros! 🚀"
)

EVENING = (
    "👋 ¡Hola de nuevo! Espero que hayas tenido un día increíble. ✨\n\n"
    "Cuéntame, ¿cómo te fue hoy? ¿Lograste cumplir los objetivos que te propusiste esta mañana?\n\n"
    "Recuerda que cada pequeño logro cuenta mucho. ¡Seguro diste lo mejor de ti! 🌟😊"
)

FOLLOWUP = (
    "🌈 ¡Ánimo! A veces los días no salen como planeamos, y está bien. 😊\n\n"
    "¿Me cuentas qué te dificultó cumplir con tus objetivos hoy? Entenderlo nos ayudará a mejorar mañana.\n\n"
    "Recuerda que lo importante es intentarlo y seguir adelante. ¡Estoy aquí para apoyarte! ✨💪"
)

CONGRATS_PREFIX = "🎉 ¡Excelente! Parece que cumpliste tus objetivos de hoy.\n\n"

CLOSING_THANKS = (
    "🙏 Gracias por contarme. Tomar nota de lo que pasó ya es un avance.\n"
    "Mañana es una nueva oportunidad. ¡Nos vemos en el próximo daily! 🌟"
)

STATUS_ALREADY_STARTED = "✅ Tu daily de hoy ya está en marcha. Te escribo en la tarde para ver cómo te fue."

STATUS_AWAITING_FOLLOWUP = "📝 Cuéntame qué te dificultó cumplir tus objetivos hoy."

STATUS_DONE = "🌟 Tu daily de hoy ya está cerrado. ¡Nos vemos mañana!"

DEBUG_SUFFIX = "\n\n[debug]"


def congrats(advice: str = "") -> str:
    if advice:
        return f"{CONGRATS_PREFIX}💡 {advice}"
    return CONGRATS_PREFIX.rstrip()
