from osw.simulation.scenario_grid import DateGroup, ScenarioGrid, generate_scenario_grid

__all__ = ["DateGroup", "ScenarioGrid", "generate_scenario_grid"]
